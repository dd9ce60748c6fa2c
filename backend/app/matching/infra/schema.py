"""DDL for the matching tables.

``profiles`` belongs to the auth provider; it is created here only so a fresh
database can run the service locally.
"""

from __future__ import annotations

from app.settings import settings


def statements(dimensions: int | None = None) -> list[str]:
	dims = int(dimensions or settings.embedding_dimensions)
	return [
		"CREATE EXTENSION IF NOT EXISTS vector",
		"CREATE EXTENSION IF NOT EXISTS pgcrypto",
		"""
		CREATE TABLE IF NOT EXISTS profiles (
			id UUID PRIMARY KEY,
			full_name TEXT,
			email TEXT,
			created_at TIMESTAMPTZ NOT NULL DEFAULT now()
		)
		""",
		"""
		CREATE TABLE IF NOT EXISTS groups (
			id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
			name TEXT NOT NULL,
			slug TEXT NOT NULL UNIQUE,
			password_hash TEXT,
			invite_code TEXT NOT NULL UNIQUE,
			created_by UUID REFERENCES profiles(id),
			created_at TIMESTAMPTZ NOT NULL DEFAULT now()
		)
		""",
		f"""
		CREATE TABLE IF NOT EXISTS group_memberships (
			id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
			group_id UUID NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
			user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
			role TEXT NOT NULL DEFAULT 'member' CHECK (role IN ('admin', 'member')),
			profile_data JSONB NOT NULL DEFAULT '{{}}'::jsonb,
			embedding vector({dims}),
			joined_at TIMESTAMPTZ NOT NULL DEFAULT now(),
			updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
			UNIQUE (group_id, user_id)
		)
		""",
		"""
		CREATE TABLE IF NOT EXISTS group_match_requests (
			id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
			group_id UUID NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
			requester_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
			target_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
			status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'accepted')),
			created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
			UNIQUE (group_id, requester_id, target_id),
			CHECK (requester_id <> target_id)
		)
		""",
		"""
		CREATE INDEX IF NOT EXISTS idx_group_match_requests_target
			ON group_match_requests (group_id, target_id, status, created_at DESC)
		""",
		"""
		CREATE TABLE IF NOT EXISTS group_connections (
			id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
			group_id UUID NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
			user_a UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
			user_b UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
			match_reason TEXT,
			created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
			UNIQUE (group_id, user_a, user_b),
			CHECK (user_a < user_b)
		)
		""",
		"""
		CREATE TABLE IF NOT EXISTS group_hidden_profiles (
			group_id UUID NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
			user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
			hidden_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
			hidden_until TIMESTAMPTZ,
			created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
			PRIMARY KEY (group_id, user_id, hidden_id)
		)
		""",
	]
