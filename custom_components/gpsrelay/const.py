"""Constants for the GPS Relay integration."""

from datetime import timedelta

DOMAIN = "gpsrelay"

API_TIMEOUT = 30

CONF_DEVICE_ID = "device_id"
CONF_SOURCE = "source"
CONF_SINK = "sink"
CONF_ENDPOINT = "endpoint"
CONF_TIMEOUT = "timeout"
CONF_BACKGROUND = "background"
CONF_INTERVAL = "interval"

SINK_REMOTE = "remote"
SINK_LOCAL = "local"
SINKS = [SINK_REMOTE, SINK_LOCAL]

SOURCE_SIMULATION = "simulation"

DEFAULT_TIMEOUT = 10
DEFAULT_INTERVAL = 2
DEFAULT_BACKGROUND = True

STORE_KEY_PREFIX = "gpsData_"

SPEED_FACTOR = 3.6
MOVING_SPEED_THRESHOLD = 2.0
OFFLINE_AFTER = timedelta(seconds=30)
SUCCESS_MESSAGE_TTL = 3

SIMULATION_BASE_LAT = 14.5995
SIMULATION_BASE_LNG = 120.9842
SIMULATION_RADIUS = 0.01

STATUS_MOVING = "moving"
STATUS_IDLE = "idle"
STATUS_OFFLINE = "offline"

MSG_START_TRACKING = "START_TRACKING"
MSG_STOP_TRACKING = "STOP_TRACKING"
MSG_UPDATE_POSITION = "UPDATE_POSITION"

SERVICE_START_TRACKING = "start_tracking"
SERVICE_STOP_TRACKING = "stop_tracking"
SERVICE_SEND_LOCATION = "send_location"

ATTR_DEVICE_ID = "device_id"
ATTR_LATITUDE = "latitude"
ATTR_LONGITUDE = "longitude"
ATTR_SPEED = "speed"
ATTR_HEADING = "heading"
ATTR_ACCURACY = "accuracy"
ATTR_LAST_SENT = "last_sent"
ATTR_SENT_COUNT = "sent_count"

EVENT_LOCATION_STORED = "gpsrelay_location_stored"
