"""
Accounts app - tenancy, users and the authorization gate.

Every ledger operation runs on behalf of an ActorContext (user + company +
membership) resolved here.
"""
