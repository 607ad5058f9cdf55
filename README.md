# multirole

Building blocks for a server that hosts card game duels. The package is a
library of separate pieces. You wire them together yourself.

## What is in it

- **Client messages.** `multirole.ctosmsg.CTOSMsg` takes one client packet:
  a 16-bit length, a type byte and a body. It checks the header with
  `is_header_valid()`. It decodes bodies of a fixed size with `rps_choice()`,
  `turn_choice()`, `player_info()`, `create_game()`, `join_game()`,
  `try_kick()` and `rematch()`. Each of these returns `None` when the body
  has the wrong size. `reader()` returns a `BodyReader` for bodies of any
  other shape.
- **Server messages.** A `multirole.stocmsg.STOCMsg` is an immutable
  message. `bytes(msg)` gives the wire form of it.
  `multirole.stocmsg_factory.STOCMsgFactory` builds the messages a room
  sends: type changes, chat, player enter, player change and player move,
  spectator counts, the duel start and end prompts, rock-paper-scissors,
  rematch, side-decking, time limits, replays, and join, deck, version and
  side errors. A seat is a `(team, slot)` tuple. A spectator is `None`.
- **Duel core messages.** `multirole.coremsg` splits a core output buffer
  into messages with `split_to_msgs`. It decides who may receive each
  message with `message_distribution_type` and `message_receiving_team`.
  `strip_message_for_team` zeroes the card codes a team must not see.
  `pre_dist_query_requests` and `post_dist_query_requests` list the card
  refresh queries a message calls for. `make_start_msg`,
  `make_update_card_msg` and `make_update_data_msg` build messages.
- **Card queries.** `multirole.query` decodes card query buffers with
  `deserialize_single_query` and `deserialize_location_query`, which give
  `Query` objects. It encodes them again with `serialize_single_query` and
  `serialize_location_query`, which leave out private fields of hidden
  cards.
- **Banlists.** `multirole.banlist.parse_banlists` reads banlist text into
  `Banlist` objects keyed by their hash. Each `Banlist` has `whitelist` and
  `codes`. A malformed card line raises `BanlistParseError`, which gives the
  line number.
- **Card data.** `multirole.carddb.CardDatabase` is an SQLite database that
  lives in memory by default. `merge()` copies other card database files into
  it. `data_from_code()` and `extra_from_code()` look up a card and cache the
  result.
- **Decks, host settings and RNG.** `multirole.deck.Deck` has `code_map()`.
  `multirole.msgcommon` holds `HostInfo`, `ClientVersion`, `SERVER_VERSION`
  and `SERVER_HANDSHAKE`. `multirole.rng` holds the generators `SplitMix64`
  and `Xoshiro256StarStar`. Call an instance to get its next 64-bit value.
- **Logging.** `multirole.loghandler.LogHandler` is built from a
  configuration dict. It sends service messages (`log_service`) and duel
  errors (`log_error_category`) to one sink each. The sinks are in
  `multirole.logsinks` (`FileSink`, `StdoutSink`, `StderrSink`, and `Sink`,
  which discards everything) and in `multirole.discord`
  (`DiscordWebhookSink`, which posts embeds in the background). With room
  logging enabled, `make_room_logger()` opens one `RoomLogger` file per room.
- **Services.** `multirole.providers` holds `BanlistProvider`,
  `DataProvider` and `ScriptProvider`. Each one picks the files that match a
  regular expression out of the lists passed to `on_add()` and `on_diff()`
  and loads them. `multirole.replay_manager.ReplayManager` writes replay
  bytes to `<id>.yrpX` files. It hands out IDs from a `lastId` file that is
  guarded by a file lock, so this is safe across processes.

## What it does not do

The package has no server and no command. It does not listen for
connections, run rooms or duels, or load a duel engine. It does not clone or
update repositories. The providers only react to the file lists that you
pass them. `ReplayManager` stores replay bytes you have already built. It
does not record replays.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from multirole.banlist import parse_banlists
from multirole.rng import Xoshiro256StarStar

text = """!2024.01 TCG
12345678 0
87654321 1
"""
banlists = parse_banlists(text.splitlines())
for hash_value, banlist in banlists.items():
    print(hash_value, banlist.whitelist, banlist.codes)

rng = Xoshiro256StarStar([1, 2, 3, 4])
print(rng())
```