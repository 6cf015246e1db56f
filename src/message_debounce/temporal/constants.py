"""
Server-side scripts and constants for the debounce coordinator.
"""

# Atomic compare-and-flush.
#
# KEYS[1] = message list key  (debounce:<session>:msgs)
# KEYS[2] = start-time key    (debounce:<session>:startTime)
# ARGV[1] = id of the entry appended by the calling execution
#
# Returns every raw entry when the caller appended the last one, otherwise nil
# without touching anything. The session marker is never deleted here.
FLUSH_SCRIPT = """
local key  = KEYS[1]
local tkey = KEYS[2]
local bid  = ARGV[1]

local last = redis.call('LINDEX', key, -1)
if not last then return nil end

local ok, entry = pcall(cjson.decode, last)
if not ok or type(entry) ~= 'table' then return nil end
if entry.id ~= bid then return nil end

local all = redis.call('LRANGE', key, 0, -1)
redis.call('DEL', key)
redis.call('DEL', tkey)
return all
"""

# Unconditional read-and-clear used by the immediate flush paths.
#
# KEYS[1] = message list key, KEYS[2] = start-time key
DRAIN_SCRIPT = """
local all = redis.call('LRANGE', KEYS[1], 0, -1)
redis.call('DEL', KEYS[1])
redis.call('DEL', KEYS[2])
return all
"""

KEY_PREFIX = "debounce"

SESSION_MARKER_VALUE = "1"

# Seconds per user-facing TTL unit
TTL_MULTIPLIERS: dict[str, int] = {
    "minutes": 60,
    "hours": 3_600,
    "days": 86_400,
}
