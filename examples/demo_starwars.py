"""Demo: a small Star Wars schema served by the engine.

Run a query from the command line:

    gql-pyengine run -s examples/demo_starwars.py:schema query.graphql

or from Python:

    python examples/demo_starwars.py
"""

import asyncio
import json

from gql_pyengine.core import (
    ID,
    Enum,
    Field,
    GraphQLEngine,
    Interface,
    List,
    NonNull,
    Object,
    Schema,
    String,
    implement,
)

CHARACTERS = {
    "1000": {"__typename": "Human", "id": "1000", "name": "Luke Skywalker",
             "friends": ["1002", "2001"], "appearsIn": [4, 5, 6], "homePlanet": "Tatooine"},
    "1002": {"__typename": "Human", "id": "1002", "name": "Han Solo",
             "friends": ["1000", "2001"], "appearsIn": [4, 5, 6], "homePlanet": None},
    "2001": {"__typename": "Droid", "id": "2001", "name": "R2-D2",
             "friends": ["1000", "1002"], "appearsIn": [4, 5, 6], "primaryFunction": "Astromech"},
}


def load_friends(_ctx, sources, _args, _selection_set):
    """One call for every character in a list."""
    return [[CHARACTERS[i] for i in source["friends"]] for source in sources]


def resolve_hero(_ctx, _source, args, _selection_set):
    return CHARACTERS["2001"] if args.get("episode") != 5 else CHARACTERS["1000"]


def resolve_human(_ctx, _source, args, _selection_set):
    character = CHARACTERS.get(args["id"])
    if character is None or character["__typename"] != "Human":
        return None
    return character


episode = Enum("Episode", {"NEWHOPE": 4, "EMPIRE": 5, "JEDI": 6}, description="A film")

character = Interface("Character", fields={
    "id": Field(NonNull(ID)),
    "name": Field(String),
})
character.fields["friends"] = Field(List(character))
character.fields["appearsIn"] = Field(List(episode))

common_fields = {
    "id": Field(NonNull(ID)),
    "name": Field(String),
    "friends": Field(List(character), batch_resolver=load_friends),
    "appearsIn": Field(List(episode)),
}

human = Object("Human", fields={**common_fields, "homePlanet": Field(String)})
droid = Object("Droid", fields={**common_fields, "primaryFunction": Field(String)})
implement(human, character)
implement(droid, character)

query = Object("Query", fields={
    "hero": Field(character, args={"episode": episode}, resolver=resolve_hero),
    "human": Field(human, args={"id": NonNull(ID)}, resolver=resolve_human),
})

schema = Schema(query=query)


async def main():
    engine = GraphQLEngine(schema)
    response = await engine.execute(
        """
        query Hero($episode: Episode) {
          hero(episode: $episode) {
            name
            ... on Droid { primaryFunction }
            friends { name appearsIn }
          }
        }
        """,
        {"episode": "EMPIRE"},
    )
    print(json.dumps(response.to_dict(), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
