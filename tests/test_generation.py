from scanview.utils.generation import GenerationGuard


class TestGenerationGuard:

    def test_latest_token_publishes(self):
        guard = GenerationGuard("map")
        token = guard.begin()
        assert token.is_current
        assert guard.publish(token, "result")
        assert guard.latest == "result"

    def test_superseded_result_is_dropped(self):
        guard = GenerationGuard("map")
        old = guard.begin()
        new = guard.begin()
        assert not old.is_current
        assert guard.publish(new, "new")
        assert not guard.publish(old, "old")
        assert guard.latest == "new"

    def test_guards_are_independent(self):
        a, b = GenerationGuard("a"), GenerationGuard("b")
        token = a.begin()
        b.begin()
        assert token.is_current
