"""
Veo3 scene replicator: turns a video into a global style token, per-scene
image/video prompts and voiceover scripts for Google Veo3.
"""

__version__ = "3.7.0"
