"""HTTP routers and outbound notification transports."""
