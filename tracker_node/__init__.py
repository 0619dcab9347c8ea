"""Device-side agent: keeps the tracker on WiFi and reports its GPS fixes to the hub."""
