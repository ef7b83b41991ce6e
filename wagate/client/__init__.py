# HTTP client for a running gateway
