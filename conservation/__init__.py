"""
Conservation Alert Service

Turns carrier conservation notices into tracked alerts for insurance agents:
- Fireworks AI for extracting notice data and writing outreach texts
- MongoDB for agents, clients, policies and alert documents
- Expo push + Twilio SMS for the automated drip campaign
"""

__version__ = "1.0.0"
