import pytest
import voluptuous as vol

from homeassistant.data_entry_flow import FlowResultType

from custom_components.caregiver_monitor.const import (
    CONF_EVENT_TYPE_FILTER,
    CONF_SUMMARY_ENABLED,
    CONF_TIME_RANGE_FILTER,
)

from .common import push, setup_entry

pytestmark = pytest.mark.usefixtures("auto_enable_custom_integrations", "store_callbacks")


@pytest.mark.asyncio
async def test_options_flow_updates_entity(hass, store_callbacks):
    entry = await setup_entry(hass)
    await push(hass, store_callbacks)
    assert hass.states.get("sensor.caregiver_box1_medicine_taken").state == "1"

    # Open options
    result = await hass.config_entries.options.async_init(entry.entry_id)
    assert result["type"] == FlowResultType.FORM

    # Submit new values
    result2 = await hass.config_entries.options.async_configure(
        result["flow_id"],
        user_input={
            CONF_EVENT_TYPE_FILTER: "Emergency",
            CONF_TIME_RANGE_FILTER: "All",
            CONF_SUMMARY_ENABLED: False,
        },
    )
    assert result2["type"] == FlowResultType.CREATE_ENTRY
    await hass.async_block_till_done()

    assert entry.options[CONF_EVENT_TYPE_FILTER] == "Emergency"
    # Entity should reflect the new filter
    assert hass.states.get("sensor.caregiver_box1_medicine_taken").state == "0"
    state = hass.states.get("sensor.caregiver_box1_emergencies")
    assert state.state == "1"
    assert state.attributes.get("event_type_filter") == "Emergency"


@pytest.mark.asyncio
async def test_options_flow_rejects_unknown_time_range(hass):
    entry = await setup_entry(hass)
    result = await hass.config_entries.options.async_init(entry.entry_id)

    with pytest.raises(vol.Invalid):
        await hass.config_entries.options.async_configure(
            result["flow_id"],
            user_input={CONF_TIME_RANGE_FILTER: "Year"},
        )
