"""
Accounts app - staff authentication and authorization for TaxDesk.

This app provides:
- User: email-login staff user with a role and a department
- Role / Permission: role-based permission codes
- Department: organisational unit owning client folders
- Notification: in-app notifications
- ActorContext: authorization context utilities
"""
