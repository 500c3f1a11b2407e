"""Children's book discovery API."""
