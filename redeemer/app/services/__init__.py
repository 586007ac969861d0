"""Business services for the redemption service."""
