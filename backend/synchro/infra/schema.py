"""Relational schema for the synchronicity pipeline.

Applied idempotently at startup. Uniqueness rules that guard against duplicate
pings, matches, auto lobbies and mirror matches live here as indexes so that
concurrent writers are arbitrated by Postgres rather than by read-then-write checks.
"""

from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger(__name__)


TABLES_DDL = """
CREATE TABLE IF NOT EXISTS profiles (
	id TEXT PRIMARY KEY,
	display_name TEXT,
	karma_balance INTEGER NOT NULL DEFAULT 10,
	updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS user_activities (
	id UUID PRIMARY KEY,
	user_id TEXT NOT NULL,
	activity_type TEXT NOT NULL,
	venue_type TEXT,
	latitude DOUBLE PRECISION NOT NULL,
	longitude DOUBLE PRECISION NOT NULL,
	confidence DOUBLE PRECISION NOT NULL,
	speed DOUBLE PRECISION NOT NULL DEFAULT 0,
	location_name TEXT,
	detected_at TIMESTAMPTZ NOT NULL,
	expires_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_user_activities_user_detected ON user_activities (user_id, detected_at DESC);
CREATE INDEX IF NOT EXISTS idx_user_activities_expires ON user_activities (expires_at);

CREATE TABLE IF NOT EXISTS activity_patterns (
	id UUID PRIMARY KEY,
	user_id TEXT NOT NULL,
	day_of_week SMALLINT NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
	time_slot TEXT NOT NULL,
	activity_type TEXT NOT NULL,
	frequency DOUBLE PRECISION NOT NULL,
	occurrence_count INTEGER NOT NULL,
	last_occurred TIMESTAMPTZ NOT NULL,
	UNIQUE (user_id, day_of_week, time_slot, activity_type)
);

CREATE TABLE IF NOT EXISTS synchronicities (
	id UUID PRIMARY KEY,
	user_ids TEXT[] NOT NULL,
	activity_type TEXT NOT NULL,
	location_name TEXT,
	latitude DOUBLE PRECISION NOT NULL,
	longitude DOUBLE PRECISION NOT NULL,
	sync_score DOUBLE PRECISION NOT NULL CHECK (sync_score >= 0.5 AND sync_score <= 1.0),
	distance_meters DOUBLE PRECISION NOT NULL,
	lobby_created BOOLEAN NOT NULL DEFAULT FALSE,
	lobby_id UUID,
	created_at TIMESTAMPTZ NOT NULL,
	expires_at TIMESTAMPTZ NOT NULL,
	notified_at TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS idx_synchronicities_users ON synchronicities USING GIN (user_ids);

CREATE TABLE IF NOT EXISTS auto_lobbies (
	id UUID PRIMARY KEY,
	host_id TEXT NOT NULL,
	title TEXT NOT NULL,
	description TEXT NOT NULL,
	activity_type TEXT NOT NULL,
	lobby_type TEXT NOT NULL,
	location_name TEXT NOT NULL,
	latitude DOUBLE PRECISION NOT NULL,
	longitude DOUBLE PRECISION NOT NULL,
	max_participants INTEGER NOT NULL,
	min_participants INTEGER NOT NULL,
	current_participants INTEGER NOT NULL DEFAULT 0,
	scheduled_time TIMESTAMPTZ NOT NULL,
	auto_start_at TIMESTAMPTZ NOT NULL,
	status TEXT NOT NULL DEFAULT 'open',
	synchronicity_id UUID,
	is_auto_generated BOOLEAN NOT NULL DEFAULT TRUE,
	is_paid BOOLEAN NOT NULL DEFAULT FALSE,
	created_at TIMESTAMPTZ NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_auto_lobbies_synchronicity ON auto_lobbies (synchronicity_id);
CREATE INDEX IF NOT EXISTS idx_auto_lobbies_open ON auto_lobbies (status, auto_start_at) WHERE is_auto_generated;

CREATE TABLE IF NOT EXISTS lobby_participants (
	lobby_id UUID NOT NULL REFERENCES auto_lobbies (id) ON DELETE CASCADE,
	user_id TEXT NOT NULL,
	status TEXT NOT NULL,
	payment_status TEXT NOT NULL,
	joined_at TIMESTAMPTZ NOT NULL,
	PRIMARY KEY (lobby_id, user_id)
);

CREATE TABLE IF NOT EXISTS user_rhythms (
	user_id TEXT PRIMARY KEY,
	wake_time TEXT,
	sleep_time TEXT,
	lunch_time TEXT,
	workout_pattern JSONB NOT NULL DEFAULT '[]'::jsonb,
	commute_pattern JSONB NOT NULL DEFAULT '[]'::jsonb,
	social_peaks INTEGER[] NOT NULL DEFAULT '{}',
	rhythm_type TEXT NOT NULL,
	energy_peaks INTEGER[] NOT NULL DEFAULT '{}',
	coffee_spots TEXT[] NOT NULL DEFAULT '{}',
	favorite_venues TEXT[] NOT NULL DEFAULT '{}',
	weekend_routine JSONB NOT NULL DEFAULT '{}'::jsonb,
	calculated_at TIMESTAMPTZ NOT NULL,
	updated_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS mirror_matches (
	user_a TEXT COLLATE "C" NOT NULL,
	user_b TEXT COLLATE "C" NOT NULL,
	overlap_score DOUBLE PRECISION NOT NULL,
	shared_routines TEXT[] NOT NULL DEFAULT '{}',
	last_updated TIMESTAMPTZ NOT NULL,
	PRIMARY KEY (user_a, user_b),
	CHECK (user_a < user_b)
);

CREATE TABLE IF NOT EXISTS pings (
	id UUID PRIMARY KEY,
	from_user TEXT NOT NULL,
	to_user TEXT NOT NULL,
	activity TEXT NOT NULL,
	status TEXT NOT NULL DEFAULT 'pending',
	created_at TIMESTAMPTZ NOT NULL,
	expires_at TIMESTAMPTZ NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_pings_pending ON pings (from_user, to_user, activity) WHERE status = 'pending';
CREATE INDEX IF NOT EXISTS idx_pings_to_user ON pings (to_user, status);

CREATE TABLE IF NOT EXISTS matches (
	id UUID PRIMARY KEY,
	ping_id UUID NOT NULL REFERENCES pings (id),
	user_a TEXT NOT NULL,
	user_b TEXT NOT NULL,
	activity TEXT NOT NULL,
	created_at TIMESTAMPTZ NOT NULL,
	expires_at TIMESTAMPTZ NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_matches_ping ON matches (ping_id);

CREATE TABLE IF NOT EXISTS match_messages (
	id TEXT PRIMARY KEY,
	match_id UUID NOT NULL REFERENCES matches (id) ON DELETE CASCADE,
	sender_id TEXT NOT NULL,
	content TEXT NOT NULL,
	created_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_match_messages_match ON match_messages (match_id, created_at);

CREATE TABLE IF NOT EXISTS karma_transactions (
	id UUID PRIMARY KEY,
	user_id TEXT NOT NULL,
	amount INTEGER NOT NULL,
	transaction_type TEXT NOT NULL,
	related_user_id TEXT,
	description TEXT NOT NULL,
	multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
	metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
	created_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_karma_transactions_user ON karma_transactions (user_id, created_at DESC);
"""


FUNCTIONS_DDL = """
CREATE OR REPLACE FUNCTION find_nearby_users(
	p_user_id TEXT,
	p_latitude DOUBLE PRECISION,
	p_longitude DOUBLE PRECISION,
	p_radius_meters DOUBLE PRECISION,
	p_now TIMESTAMPTZ DEFAULT now()
) RETURNS TABLE (
	user_id TEXT,
	distance_meters DOUBLE PRECISION,
	activity_type TEXT,
	location_name TEXT,
	detected_at TIMESTAMPTZ
) LANGUAGE sql STABLE AS $$
	WITH latest AS (
		SELECT DISTINCT ON (a.user_id)
			a.user_id, a.activity_type, a.location_name, a.detected_at, a.latitude, a.longitude
		FROM user_activities a
		WHERE a.user_id <> p_user_id AND a.expires_at > p_now
		ORDER BY a.user_id, a.detected_at DESC
	), measured AS (
		SELECT
			l.user_id,
			2 * 6371000 * asin(LEAST(1.0, sqrt(
				power(sin(radians(l.latitude - p_latitude) / 2), 2)
				+ cos(radians(p_latitude)) * cos(radians(l.latitude))
				* power(sin(radians(l.longitude - p_longitude) / 2), 2)
			))) AS distance_meters,
			l.activity_type,
			l.location_name,
			l.detected_at
		FROM latest l
	)
	SELECT m.user_id, m.distance_meters, m.activity_type, m.location_name, m.detected_at
	FROM measured m
	WHERE m.distance_meters <= p_radius_meters
	ORDER BY m.distance_meters ASC
$$;

CREATE OR REPLACE FUNCTION get_karma_balance(p_user_id TEXT)
RETURNS INTEGER LANGUAGE sql STABLE AS $$
	SELECT (10 + COALESCE(SUM(t.amount), 0))::INTEGER
	FROM karma_transactions t
	WHERE t.user_id = p_user_id
$$;

CREATE OR REPLACE FUNCTION calculate_rhythm_compatibility(p_user1_id TEXT, p_user2_id TEXT)
RETURNS DOUBLE PRECISION LANGUAGE sql STABLE AS $$
	SELECT COALESCE((
		SELECT LEAST(1.0,
			(CASE WHEN a.rhythm_type = b.rhythm_type THEN 0.4 ELSE 0.0 END)
			+ 0.3 * (SELECT count(*) FROM unnest(a.social_peaks) p WHERE p = ANY (b.social_peaks))::DOUBLE PRECISION
				/ GREATEST(cardinality(a.social_peaks), cardinality(b.social_peaks), 1)
			+ 0.3 * (SELECT count(*) FROM unnest(a.favorite_venues) v WHERE v = ANY (b.favorite_venues))::DOUBLE PRECISION
				/ GREATEST(cardinality(a.favorite_venues), cardinality(b.favorite_venues), 1)
		)
		FROM user_rhythms a, user_rhythms b
		WHERE a.user_id = p_user1_id AND b.user_id = p_user2_id
	), 0.0)
$$;
"""


async def ensure_schema(pool: asyncpg.pool.Pool | None) -> None:
	"""Create tables, indexes and server-side functions if they are missing."""
	if pool is None:
		return
	async with pool.acquire() as conn:
		async with conn.transaction():
			await conn.execute(TABLES_DDL)
			await conn.execute(FUNCTIONS_DDL)
	logger.info("schema ensured")
