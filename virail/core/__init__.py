"""Core building blocks shared by the auth and API layers."""
