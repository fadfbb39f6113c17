"""
Enscope
=======

Automation readiness assessment for ITOM event management engagements.
"""

__version__ = "0.1.0"
