"""
Clients for external APIs: OpenAI classification and OpenPhone SMS.
"""
