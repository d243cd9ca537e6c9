"""
Meta (Facebook) Graph API Connector - long-lived token exchange only

Author: UNISTOCK
Date: 2025-10-04
"""
from typing import Dict, Any

from unistock.connectors.base import BaseConnector

GRAPH_API_VERSION = "v21.0"


class MetaConnector(BaseConnector):
    base_url = f"https://graph.facebook.com/{GRAPH_API_VERSION}"

    async def exchange_token(self, token: str, app_id: str, app_secret: str) -> Dict[str, Any]:
        """
        fb_exchange_token: trade a token for a fresh long-lived one (~60 days)

        Returns:
            {'access_token', 'token_type', 'expires_in'}
        """
        return await self._request(
            "GET", "/oauth/access_token",
            params={
                'grant_type': 'fb_exchange_token',
                'client_id': app_id,
                'client_secret': app_secret,
                'fb_exchange_token': token
            },
            authenticated=False
        )
