"""
Lead Intelligence
Scores CRM contacts and leads from their email, task and calendar activity.
"""
