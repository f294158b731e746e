# Message type constants (stringly-typed protocol; canonical list lives here)

# client -> server
T_UPDATE_SETTINGS = "updateSettings"
T_LIGHT_TRAIL = "lightTrail"
T_MOUSE_POSITION = "mousePosition"
T_CLEAR = "clear"
T_PING = "ping"
T_PONG = "pong"

# server -> clients
T_WELCOME = "welcome"
T_CLIENT_JOINED = "clientJoined"
T_CLIENT_LEFT = "clientLeft"
T_USER_SETTINGS = "userSettings"
T_SETTINGS_ACK = "settingsAck"
T_ERROR = "error"
T_METEOR_SHOWER = "meteorShower"

# WebSocket close codes
CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_ABNORMAL = 1006
