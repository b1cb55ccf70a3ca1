"""The Aula parent dashboard integration."""

import asyncio
import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed, ConfigEntryNotReady
from homeassistant.helpers import device_registry as dr

from .const import CONF_EMAIL, DOMAIN, SETUP_TIMEOUT_SECONDS
from .coordinator import AulaDataUpdateCoordinator
from .services import async_register_services, async_unregister_services

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [Platform.SENSOR]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
	"""Set up Aula from a config entry."""
	_LOGGER.debug("Setting up Aula integration")

	coordinator = AulaDataUpdateCoordinator(hass, entry)

	try:
		await asyncio.wait_for(
			coordinator.async_config_entry_first_refresh(),
			timeout=SETUP_TIMEOUT_SECONDS,
		)
	except asyncio.TimeoutError:
		_LOGGER.error(f"Aula setup timed out after {SETUP_TIMEOUT_SECONDS} seconds")
		raise ConfigEntryNotReady("Setup timeout") from None
	except (ConfigEntryAuthFailed, ConfigEntryNotReady):
		raise
	except Exception as err:
		_LOGGER.error("Failed to set up Aula: %s", err)
		raise ConfigEntryNotReady from err

	hass.data.setdefault(DOMAIN, {})
	hass.data[DOMAIN][entry.entry_id] = coordinator

	await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

	# Register device for the parent account
	device_registry = dr.async_get(hass)
	device_registry.async_get_or_create(
		config_entry_id=entry.entry_id,
		identifiers={(DOMAIN, entry.entry_id)},
		manufacturer="Aula",
		name=f"Aula ({entry.data[CONF_EMAIL]})",
		model="Parent dashboard",
	)

	entry.async_on_unload(entry.add_update_listener(async_reload_entry))

	await async_register_services(hass)

	return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
	"""Unload a config entry."""
	_LOGGER.debug("Unloading Aula integration")

	unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

	if unload_ok:
		coordinator = hass.data[DOMAIN].pop(entry.entry_id)
		await coordinator.async_shutdown()

		# Remove services if this was the last entry
		if not hass.data[DOMAIN]:
			await async_unregister_services(hass)

	return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
	"""Reload config entry, e.g. after the tracked ids changed."""
	await hass.config_entries.async_reload(entry.entry_id)
