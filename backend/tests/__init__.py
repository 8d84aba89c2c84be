# FuelPOS backend test suite
#
# - services: QR payload encoding, poller, payment sessions, recorder
# - routes:   FastAPI endpoints through TestClient
