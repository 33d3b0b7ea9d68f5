"""
Firebase Cloud Messaging client (HTTP v1 API).

Auth: the service account signs a JWT (RS256) which is exchanged for an OAuth
access token at FCM_TOKEN_URI. The access token is cached until shortly before
it expires.

Multicast is "send each": one request per device token, sent concurrently;
failures for individual tokens are counted and logged, never raised.
"""

import asyncio
import time
from typing import Optional

import httpx
import jwt

from app.core.config import Settings
from app.core.logging import get_logger
from app.services.interfaces.notification import NotificationGateway

logger = get_logger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
_ASSERTION_LIFETIME_SECONDS = 3600
_TOKEN_REFRESH_MARGIN_SECONDS = 300


class FcmNotificationGateway(NotificationGateway):

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._project_id = settings.FCM_PROJECT_ID
        self._client_email = settings.FCM_CLIENT_EMAIL
        # Keys pasted into env files usually carry literal "\n" sequences
        self._private_key = (settings.FCM_PRIVATE_KEY or "").replace("\\n", "\n")
        self._token_uri = settings.FCM_TOKEN_URI
        self._timeout = settings.FCM_TIMEOUT
        self._transport = transport
        self._access_token: Optional[tuple[str, float]] = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _build_assertion(self, now: float) -> str:
        token = jwt.encode(
            {
                "iss": self._client_email,
                "scope": FCM_SCOPE,
                "aud": self._token_uri,
                "iat": int(now),
                "exp": int(now) + _ASSERTION_LIFETIME_SECONDS,
            },
            self._private_key,
            algorithm="RS256",
        )
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        now = time.time()
        if self._access_token and self._access_token[1] > now:
            return self._access_token[0]

        response = await client.post(
            self._token_uri,
            data={
                "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                "assertion": self._build_assertion(now),
            },
        )
        response.raise_for_status()
        payload = response.json()
        expires_in = int(payload.get("expires_in", _ASSERTION_LIFETIME_SECONDS))
        self._access_token = (
            payload["access_token"],
            now + max(expires_in - _TOKEN_REFRESH_MARGIN_SECONDS, 0),
        )
        return self._access_token[0]

    @staticmethod
    def _notification(title: str, body: str, image_url: Optional[str]) -> dict:
        notification = {"title": title, "body": body}
        if image_url:
            notification["image"] = image_url
        return notification

    async def _send(self, client: httpx.AsyncClient, access_token: str, message: dict) -> bool:
        response = await client.post(
            FCM_SEND_URL.format(project_id=self._project_id),
            json={"message": message},
            headers={"authorization": f"Bearer {access_token}"},
        )
        if response.is_success:
            return True
        logger.warning(
            "fcm_send_rejected",
            status_code=response.status_code,
            detail=response.text[:300],
        )
        return False

    async def send_multicast(
        self,
        tokens: list[str],
        title: str,
        body: str,
        image_url: Optional[str] = None,
    ) -> None:
        if not tokens:
            return
        notification = self._notification(title, body, image_url)
        async with self._client() as client:
            access_token = await self._get_access_token(client)
            results = await asyncio.gather(
                *(
                    self._send(client, access_token, {"token": token, "notification": notification})
                    for token in tokens
                ),
                return_exceptions=True,
            )
        success = sum(1 for r in results if r is True)
        for r in results:
            if isinstance(r, Exception):
                logger.warning("fcm_send_error", error=str(r))
        logger.info(
            "fcm_multicast_sent",
            success_count=success,
            failure_count=len(results) - success,
        )

    async def send_topic(
        self,
        topic: str,
        title: str,
        body: str,
        image_url: Optional[str] = None,
    ) -> None:
        async with self._client() as client:
            access_token = await self._get_access_token(client)
            sent = await self._send(
                client,
                access_token,
                {"topic": topic, "notification": self._notification(title, body, image_url)},
            )
        logger.info("fcm_topic_sent", topic=topic, delivered=sent)
