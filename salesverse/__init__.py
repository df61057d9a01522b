"""
Salesverse CRM - backend API (leads, agents, AOB onboarding)
"""

__version__ = "1.0.0"
