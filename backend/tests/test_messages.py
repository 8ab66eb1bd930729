import pytest

from poker.messages import (
    MAX_STORY_LENGTH, CastVote, ClearVotes, CreateRoom, InvalidMessage, JoinRoom, RevealVotes, SetStory,
    parse_message,
)


def test_parse_create_room():
    msg = parse_message('create-room', {'roomName': ' Sprint 1 ', 'userName': 'Alice'})
    assert msg == CreateRoom(room_name='Sprint 1', user_name='Alice', is_spectator=False)


def test_parse_join_room_as_spectator():
    msg = parse_message('join-room', {'roomId': 'abc12345', 'userName': 'Sam', 'isSpectator': True})
    assert isinstance(msg, JoinRoom)
    assert msg.is_spectator is True


@pytest.mark.parametrize('payload, error', [
    ({}, 'roomId is required'),
    ({'roomId': 'abc', 'userName': '   '}, 'userName is required'),
    ({'roomId': 42, 'userName': 'Bob'}, 'roomId is required'),
    ({'roomId': 'abc', 'userName': 'Bob', 'isSpectator': 'yes'}, 'isSpectator must be a boolean'),
])
def test_parse_join_room_rejects_bad_payloads(payload, error):
    with pytest.raises(InvalidMessage) as excinfo:
        parse_message('join-room', payload)
    assert excinfo.value.message == error
    assert excinfo.value.event == 'join-room'


def test_parse_set_story_allows_empty_story():
    assert parse_message('set-story', {'story': ''}) == SetStory(story='')


def test_parse_set_story_requires_text():
    with pytest.raises(InvalidMessage):
        parse_message('set-story', {'story': None})


def test_parse_set_story_keeps_text_as_sent():
    story = '  As a user\nI can log in\n'
    assert parse_message('set-story', {'story': story}) == SetStory(story=story)
    assert parse_message('set-story', {'story': '   '}) == SetStory(story='   ')


def test_parse_set_story_length_cap():
    long_story = 'x' * MAX_STORY_LENGTH
    assert parse_message('set-story', {'story': long_story}).story == long_story
    with pytest.raises(InvalidMessage) as excinfo:
        parse_message('set-story', {'story': long_story + 'x'})
    assert excinfo.value.message == 'story is too long'


def test_parse_cast_vote_checks_card_deck():
    assert parse_message('cast-vote', {'vote': '☕'}) == CastVote(vote='☕')
    with pytest.raises(InvalidMessage):
        parse_message('cast-vote', {'vote': '4'})
    with pytest.raises(InvalidMessage):
        parse_message('cast-vote', {'vote': 5})


def test_parse_events_without_payload():
    assert parse_message('reveal-votes', None) == RevealVotes()
    assert parse_message('clear-votes', {}) == ClearVotes()


def test_parse_rejects_non_object_payload_and_unknown_events():
    with pytest.raises(InvalidMessage):
        parse_message('create-room', ['Sprint', 'Alice'])
    with pytest.raises(InvalidMessage):
        parse_message('drop-table', {})
