"""SafeMed access-request backend."""
