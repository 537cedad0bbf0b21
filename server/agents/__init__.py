"""
VirtuLab Agent Systems

This package contains the interactive components of the VirtuLab practicals:
- lab: Apparatus simulation, tick scheduling and lab sessions
- guide: Offline knowledge base and remote-model lab guide
"""
