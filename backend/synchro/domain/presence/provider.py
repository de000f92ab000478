"""Device geolocation provider interface."""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from .models import DeviceSample

SampleCallback = Callable[[DeviceSample], Awaitable[None]]


class WatchHandle(Protocol):
	def remove(self) -> None:
		...


class GeolocationProvider(Protocol):
	"""What the tracker needs from the device: permissions, a fix, and a watch."""

	async def request_foreground_permission(self) -> bool:
		...

	async def request_background_permission(self) -> bool:
		...

	async def get_current_position(self) -> DeviceSample:
		...

	async def watch_position(
		self,
		callback: SampleCallback,
		*,
		time_interval_s: float,
		distance_interval_m: float,
	) -> WatchHandle:
		...
