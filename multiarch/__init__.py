"""Multiarch pod initializer.

Watches pods that are waiting on initializers and, when this initializer is
at the head of the queue, rewrites container images to the variant declared
for the architecture of the pod's node:

 - the per-architecture images come from a JSON pod annotation
 - nodes of the baseline architecture keep the manifest images
 - changes are committed as a strategic merge patch that also dequeues us
"""
