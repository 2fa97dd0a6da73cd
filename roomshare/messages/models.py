messages_sql = """
CREATE TABLE messages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    seq BIGINT GENERATED ALWAYS AS IDENTITY,

    conversation_id UUID NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    sender_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
    receiver_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,

    content TEXT NOT NULL,
    is_read BOOLEAN NOT NULL DEFAULT FALSE,

    created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),

    CONSTRAINT content_not_blank CHECK (length(btrim(content)) > 0),
    CONSTRAINT prevent_self_message CHECK (sender_id <> receiver_id)
);

-- history() reads by conversation in (created_at, seq) order
CREATE INDEX messages_conversation_order_idx ON messages (conversation_id, created_at, seq);
CREATE INDEX messages_unread_idx ON messages (conversation_id, receiver_id) WHERE NOT is_read;

-- Realtime INSERT feed
ALTER PUBLICATION supabase_realtime ADD TABLE messages;
"""

messages_rls_sql = """
ALTER TABLE messages ENABLE ROW LEVEL SECURITY;

CREATE POLICY "sender or receiver can read" ON messages
    FOR SELECT USING (auth.uid() IN (sender_id, receiver_id));

CREATE POLICY "sender can send" ON messages
    FOR INSERT WITH CHECK (auth.uid() = sender_id);

-- only the receiver flips is_read
CREATE POLICY "receiver can mark read" ON messages
    FOR UPDATE USING (auth.uid() = receiver_id);
"""
