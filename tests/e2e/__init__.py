"""End-to-end dialog tests with scripted participants."""
