"""tagspine operator CLI."""
