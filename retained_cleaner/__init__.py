"""
retained-cleaner: find, clear and verify retained MQTT messages.

Modules
───────
config        - JSON config file loader (Settings)
session       - BrokerSession, a blocking wrapper around paho-mqtt
collector     - collect topics carrying retained messages during a window
clearing      - publish empty retained payloads, with retries
verification  - re-subscribe and check that nothing retained is left
pollute       - publish random retained fixtures for testing the cleanup
modes         - default / --test / --verify / --pollute runs
cli           - command line entry point
"""

__version__ = "0.1.0"
