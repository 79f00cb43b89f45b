"""USSD menu session engine for beneficiary self-service over feature phones."""
