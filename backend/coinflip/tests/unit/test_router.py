class TestRouting:
    async def test_ping(self, router, creator):
        await router.handle_message(creator, {"type": "ping"})
        assert creator.sent_messages == [{"type": "pong"}]

    async def test_create_room(self, router, creator):
        await router.handle_message(creator, {"type": "create_room", "side": "heads", "player_name": "Alice"})
        assert creator.message_types == ["room_created"]
        assert creator.sent_messages[0]["players"][0]["name"] == "Alice"

    async def test_join_accepts_lowercase_code(self, router, creator, joiner):
        await router.handle_message(creator, {"type": "create_room", "side": "tails"})
        code = creator.sent_messages[0]["room"]["code"]

        await router.handle_message(joiner, {"type": "join_room", "code": code.lower(), "player_name": "Bob"})

        assert joiner.message_types == ["room_ready", "room_joined"]

    async def test_room_status(self, router, creator):
        await router.handle_message(creator, {"type": "create_room", "side": "heads"})
        code = creator.sent_messages[0]["room"]["code"]

        await router.handle_message(creator, {"type": "get_room_status", "code": code})

        assert creator.message_types == ["room_created", "room_status"]

    async def test_flip_coin_on_waiting_room(self, router, creator):
        await router.handle_message(creator, {"type": "create_room", "side": "heads"})
        room_id = creator.sent_messages[0]["room"]["id"]

        await router.handle_message(creator, {"type": "flip_coin", "room_id": room_id})

        assert creator.sent_messages[-1]["error_type"] == "room_not_ready"

    async def test_connect_and_disconnect(self, router, session_manager, creator):
        await router.handle_connect(creator)
        assert session_manager.connection_count == 1

        await router.handle_disconnect(creator)
        assert session_manager.connection_count == 0


class TestValidation:
    async def test_unknown_type(self, router, creator):
        await router.handle_message(creator, {"type": "steal_pot"})
        assert creator.message_types == ["error"]
        assert creator.sent_messages[0]["error_type"] == "validation_error"

    async def test_missing_type(self, router, creator):
        await router.handle_message(creator, {"side": "heads"})
        assert creator.sent_messages[0]["error_type"] == "validation_error"

    async def test_bad_side(self, router, creator):
        await router.handle_message(creator, {"type": "create_room", "side": "edge"})
        error = creator.sent_messages[0]
        assert error["error_type"] == "validation_error"
        assert error["message"].startswith("create_room.side:")

    async def test_bad_code(self, router, joiner):
        await router.handle_message(joiner, {"type": "join_room", "code": "AB-12!"})
        assert joiner.sent_messages[0]["error_type"] == "validation_error"

    async def test_control_characters_in_name(self, router, creator):
        await router.handle_message(creator, {"type": "create_room", "side": "heads", "player_name": "Al\x00ice"})
        assert creator.sent_messages[0]["error_type"] == "validation_error"

    async def test_bad_room_id(self, router, creator):
        await router.handle_message(creator, {"type": "flip_coin", "room_id": "../../etc"})
        assert creator.sent_messages[0]["error_type"] == "validation_error"

