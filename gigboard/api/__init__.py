"""HTTP and WebSocket API for gigboard."""
