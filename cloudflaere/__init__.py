"""
Cloudflaere keeps Cloudflare DNS records in step with Traefik routers.
"""

__version__ = "0.1.0"
