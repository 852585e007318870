"""
StaffReady -- credential-compliance onboarding for contract clinicians.

Tracks per-discipline checklist items through submission and admin review,
derives each clinician's Ready-to-Staff status, and keeps that status in
step with the clock via daily expiration and reminder sweeps.
"""

__version__ = "0.1.0"
