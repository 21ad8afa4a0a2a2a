"""
Single audio channel per viewer for read-aloud of notes.

Only one clip plays at a time. Whoever acquires the channel becomes its
owner and the previous owner's clip is stopped. Only the owner can play,
pause, stop or release it. AudioService is created once at app start-up
and keeps one channel per viewer.
"""

import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from clients.edge_functions import EdgeFunctionError, generate_speech_audio
from models.notes_models import PlaybackState
from utils.exceptions import ChannelNotOwnedError, NotesError, NotFoundError

logger = logging.getLogger(__name__)

# Viewers with a live channel; each holds at most one clip.
MAX_CHANNELS = 1000


@dataclass
class AudioClip:
    owner: str
    content: bytes
    language: str = "english"
    content_type: str = "audio/mpeg"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AudioChannel:

    def __init__(self):
        self.owner: Optional[str] = None
        self.clip: Optional[AudioClip] = None
        self.state = PlaybackState.IDLE

    def acquire(self, owner: str, clip: AudioClip) -> Optional[str]:
        """Take the channel for `owner`. Returns the preempted owner, if any."""
        preempted = None
        if self.owner is not None and self.owner != owner:
            preempted = self.owner
            logger.info(f"Audio channel preempted: {preempted} -> {owner}")
        self.owner = owner
        self.clip = clip
        self.state = PlaybackState.STOPPED
        return preempted

    def _require_owner(self, owner: str) -> None:
        if self.owner != owner:
            raise ChannelNotOwnedError(owner, self.owner)

    def play(self, owner: str) -> PlaybackState:
        self._require_owner(owner)
        self.state = PlaybackState.PLAYING
        return self.state

    def pause(self, owner: str) -> PlaybackState:
        self._require_owner(owner)
        if self.state == PlaybackState.PLAYING:
            self.state = PlaybackState.PAUSED
        return self.state

    def toggle(self, owner: str) -> PlaybackState:
        if self.state == PlaybackState.PLAYING:
            return self.pause(owner)
        return self.play(owner)

    def stop(self, owner: str) -> PlaybackState:
        self._require_owner(owner)
        self.state = PlaybackState.STOPPED
        return self.state

    def release(self, owner: str) -> bool:
        """Give the channel back. A non-owner releasing is a no-op."""
        if self.owner != owner:
            return False
        self.owner = None
        self.clip = None
        self.state = PlaybackState.IDLE
        return True

    def status(self) -> Dict[str, Optional[str]]:
        return {
            "owner": self.owner,
            "clip_id": self.clip.id if self.clip else None,
            "state": self.state.value,
        }


class AudioService:

    def __init__(self, synthesize=generate_speech_audio, max_channels: int = MAX_CHANNELS):
        self._synthesize = synthesize
        self.max_channels = max_channels
        # least recently used first
        self._channels: "OrderedDict[str, AudioChannel]" = OrderedDict()

    def channel_for(self, viewer_id: str) -> AudioChannel:
        channel = self._channels.get(viewer_id)
        if channel is None:
            channel = AudioChannel()
            self._channels[viewer_id] = channel
        self._channels.move_to_end(viewer_id)
        while len(self._channels) > self.max_channels:
            evicted, idle = self._channels.popitem(last=False)
            if idle.owner is not None:
                idle.release(idle.owner)
            logger.info(f"Evicted audio channel for viewer {evicted}")
        return channel

    async def speak(self, viewer_id: str, owner: str, text: str, language: str = "english") -> Dict[str, Optional[str]]:
        """Generate speech for `text`, take the viewer's channel and start playing."""
        try:
            audio = await self._synthesize(text, language)
        except EdgeFunctionError as e:
            raise NotesError("Failed to generate audio", error_code="AUDIO_GENERATION_FAILED",
                             status_code=502, context={"reason": e.message})
        if not audio:
            raise NotesError("Failed to generate audio", error_code="AUDIO_GENERATION_FAILED", status_code=502)

        channel = self.channel_for(viewer_id)
        preempted = channel.acquire(owner, AudioClip(owner=owner, content=audio, language=language))
        channel.play(owner)
        logger.info(f"Playing {len(audio)} bytes of {language} audio for viewer {viewer_id} ({owner})")
        return {**channel.status(), "preempted": preempted}

    def clip(self, viewer_id: str, clip_id: str) -> AudioClip:
        channel = self._channels.get(viewer_id)
        if channel is None or channel.clip is None or channel.clip.id != clip_id:
            raise NotFoundError("Audio clip not found", error_code="AUDIO_CLIP_NOT_FOUND",
                                context={"clip_id": clip_id})
        return channel.clip

    def control(self, viewer_id: str, owner: str, action: str) -> Dict[str, Optional[str]]:
        # no channel yet: act on an idle one that is not kept
        channel = self._channels.get(viewer_id) or AudioChannel()
        if action == "play":
            channel.play(owner)
        elif action == "pause":
            channel.pause(owner)
        elif action == "toggle":
            channel.toggle(owner)
        elif action == "stop":
            channel.stop(owner)
        elif action == "release":
            channel.release(owner)
            if channel.owner is None:
                self._channels.pop(viewer_id, None)
        else:
            raise NotesError(f"Unknown audio action: {action}", error_code="INVALID_REQUEST", status_code=400)
        return channel.status()

    def close(self) -> None:
        for channel in self._channels.values():
            if channel.owner is not None:
                channel.release(channel.owner)
        self._channels.clear()
