"""
Bilibili live API client for Live Recorder.
Resolves room metadata and playable stream URLs.
"""

import random
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .config import DEFAULT_USER_AGENT
from .logger import get_logger


LIVE_SITE_URL = "https://live.bilibili.com"


@dataclass
class RoomInfo:
    """Live room metadata from the bilibili API."""
    roomid: int
    real_roomid: int
    streamer_name: str
    title: str = ""
    is_streaming: bool = False


class BilibiliAPI:
    """
    Bilibili live API client.

    Features:
    - Short room id to real room id resolution
    - Streamer name lookup
    - Live status checking
    - Playable stream URL resolution
    """

    BASE_URL = "https://api.live.bilibili.com"

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        request_timeout: int = 10,
        base_url: Optional[str] = None
    ):
        """
        Initialize bilibili API client.

        Args:
            user_agent: User-Agent sent with every request.
            request_timeout: Total timeout per API request in seconds.
            base_url: Override API host (used by tests).
        """
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.base_url = (base_url or self.BASE_URL).rstrip('/')

        self._session: Optional[aiohttp.ClientSession] = None
        self._logger = get_logger('bilibili_api')

    @property
    def session(self) -> aiohttp.ClientSession:
        """Shared HTTP session, also used for downloading live streams."""
        if self._session is None:
            raise RuntimeError("BilibiliAPI is not connected")
        return self._session

    async def connect(self) -> bool:
        """
        Initialize HTTP session.

        Returns:
            True if connected successfully.
        """
        if self._session is not None:
            return True
        try:
            self._session = aiohttp.ClientSession()
            self._logger.info("Bilibili API session ready")
            return True
        except Exception as e:
            self._logger.error(f"Failed to connect: {e}")
            return False

    async def disconnect(self) -> None:
        """Close session."""
        if self._session:
            await self._session.close()
            self._session = None

    def _headers(self) -> dict:
        """Get request headers."""
        return {
            'Accept': 'application/json, text/plain, */*',
            'User-Agent': self.user_agent,
            'Referer': LIVE_SITE_URL,
            'Origin': LIVE_SITE_URL,
        }

    async def _get_data(self, path: str, params: dict) -> Optional[dict]:
        """GET an API endpoint and return its ``data`` object, None on any failure."""
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with self.session.get(
            f"{self.base_url}{path}",
            headers=self._headers(),
            params=params,
            timeout=timeout
        ) as resp:
            if resp.status != 200:
                self._logger.warning(f"API error: {resp.status} for {path}")
                return None

            payload = await resp.json(content_type=None)
            if payload.get('code') != 0:
                self._logger.warning(
                    f"API returned code {payload.get('code')} for {path}: {payload.get('message') or payload.get('msg')}"
                )
                return None
            return payload.get('data')

    async def get_room_info(self, roomid: int) -> Optional[RoomInfo]:
        """
        Get room metadata.

        Args:
            roomid: Public (possibly short) room id.

        Returns:
            RoomInfo, or None if the room can't be resolved.
        """
        try:
            data = await self._get_data('/room/v1/Room/get_info', {'id': roomid})
            if not data:
                return None

            real_roomid = int(data['room_id'])
            streamer_name = await self._get_streamer_name(real_roomid)

            return RoomInfo(
                roomid=roomid,
                real_roomid=real_roomid,
                streamer_name=streamer_name or str(data.get('uid', roomid)),
                title=data.get('title', ''),
                is_streaming=data.get('live_status') == 1
            )

        except Exception as e:
            self._logger.error(f"Failed to get room info for {roomid}: {e}")
            return None

    async def _get_streamer_name(self, real_roomid: int) -> Optional[str]:
        data = await self._get_data(
            '/live_user/v1/UserInfo/get_anchor_in_room',
            {'roomid': real_roomid}
        )
        if not data:
            return None
        return (data.get('info') or {}).get('uname')

    async def get_play_url(self, real_roomid: int) -> Optional[str]:
        """
        Get a playable FLV stream URL.

        URLs expire, so this is called before every connect.

        Args:
            real_roomid: Resolved room id.

        Returns:
            Stream URL, or None if no URL is available.
        """
        try:
            data = await self._get_data(
                '/room/v1/Room/playUrl',
                {'cid': real_roomid, 'quality': 4, 'platform': 'web'}
            )
            if not data:
                return None

            urls = [d['url'] for d in data.get('durl', []) if d.get('url')]
            if not urls:
                self._logger.warning(f"No stream URL returned for room {real_roomid}")
                return None
            return random.choice(urls)

        except Exception as e:
            self._logger.error(f"Failed to get play url for {real_roomid}: {e}")
            return None
