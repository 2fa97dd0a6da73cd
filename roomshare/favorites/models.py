favorites_sql = """
CREATE TABLE favorites (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),

    user_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
    listing_id UUID NOT NULL REFERENCES listings(id) ON DELETE CASCADE,

    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),

    -- Prevent bookmarking the same listing twice
    CONSTRAINT unique_user_listing UNIQUE (user_id, listing_id)
);
"""

favorites_rls_sql = """
ALTER TABLE favorites ENABLE ROW LEVEL SECURITY;

CREATE POLICY "owner manages favorites" ON favorites
    FOR ALL USING (auth.uid() = user_id) WITH CHECK (auth.uid() = user_id);
"""
