"""Redis Lua scripts for redemption locking.

Scripts run atomically on the Redis server, so no other client can change
the key between the check and the write.
"""

# Compare-and-delete: remove the lock only if it still holds our token.
# A holder whose lock expired (and was re-acquired by another attempt) must
# not delete the new holder's lock.
# KEYS[1] = lock key, ARGV[1] = token. Returns 1 if deleted, 0 otherwise.
RELEASE_LOCK_SCRIPT = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
        return redis.call('DEL', KEYS[1])
    else
        return 0
    end
"""
