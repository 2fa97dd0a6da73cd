conversations_sql = """
CREATE TABLE conversations (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),

    participant_1 UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
    participant_2 UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,

    listing_id UUID REFERENCES listings(id),

    last_message_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),

    -- Enforce canonical ordering of the pair
    CONSTRAINT participant_1_less_than_participant_2 CHECK (participant_1 < participant_2)
);

-- One conversation per pair per listing scope ("no listing" included)
CREATE UNIQUE INDEX conversations_unique_scope ON conversations (
    participant_1,
    participant_2,
    coalesce(listing_id, '00000000-0000-0000-0000-000000000000'::uuid)
);

CREATE INDEX conversations_participant_2_idx ON conversations (participant_2);
"""

conversations_rls_sql = """
ALTER TABLE conversations ENABLE ROW LEVEL SECURITY;

CREATE POLICY "participants can read" ON conversations
    FOR SELECT USING (auth.uid() IN (participant_1, participant_2));

CREATE POLICY "participants can create" ON conversations
    FOR INSERT WITH CHECK (auth.uid() IN (participant_1, participant_2));

CREATE POLICY "participants can touch" ON conversations
    FOR UPDATE USING (auth.uid() IN (participant_1, participant_2));
"""
