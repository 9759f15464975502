"""Authentication flow: credentials, second factor, email verification."""
