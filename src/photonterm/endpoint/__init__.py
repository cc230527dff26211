"""HTTP bridge module for photonterm.

Serves the session controller's start / input / abort contract and its
read-only session view over HTTP for front ends that do not talk to the
runner's event channel directly.
"""
