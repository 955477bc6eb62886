"""ClinicRoute referral and insurer-authorisation API."""
