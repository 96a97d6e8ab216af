"""
Webhook Relay

Receives provider webhook callbacks on a public ngrok tunnel and relays them
to a fixed internal service endpoint.

Modules:
- main: FastAPI application factory and console entry point
- lifecycle: Startup sequence (probe, listener, tunnel, registration) and shutdown
- config: Environment-driven settings
- proxy: Catch-all relay endpoint
- upstream: Upstream health probe
- tunnel: ngrok tunnel handle
- provider: Twilio webhook URL registration
"""
