"""
Email delivery: validation, domain filtering, fixed retry and throttled
bulk sending in front of a pluggable transport (SMTP by default).
"""
