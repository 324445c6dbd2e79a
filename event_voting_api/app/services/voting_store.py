"""
In-memory operations on an event's voting categories.

``VotingCategoryStore`` wraps the list of ``VotingCategory`` models of
one event.  Every mutation only adds or removes a single user's id from
option vote lists, or appends options, so two users' updates to the
same category never overwrite each other's votes.

Callers work on a copy (``from_categories``) and persist the result as
a whole, which keeps a failed merge from leaking partial changes.
"""

from typing import Iterable, Optional

from ..schemas.event import VotingCategory, VotingOption


class StoreInvariantError(RuntimeError):
    """Raised when a category breaks uniqueness or single-vote rules."""


class VotingCategoryStore:
    def __init__(self, categories: list[VotingCategory]) -> None:
        self.categories = categories

    @classmethod
    def from_categories(cls, categories: Iterable[VotingCategory]) -> "VotingCategoryStore":
        return cls([c.model_copy(deep=True) for c in categories])

    # -- categories ---------------------------------------------------

    def find_category(self, name: str, field_id: Optional[str] = None) -> Optional[VotingCategory]:
        """Find a category by owning field id, falling back to its name.

        A category created before field ids were recorded has
        ``field_id=None``; the first such category with a matching name
        is returned.
        """
        if field_id is not None:
            for category in self.categories:
                if category.field_id == field_id:
                    return category
        for category in self.categories:
            if category.category_name == name and category.field_id is None:
                return category
        return None

    def ensure_category(self, name: str, field_id: Optional[str] = None) -> VotingCategory:
        category = self.find_category(name, field_id)
        if category is None:
            category = VotingCategory(category_name=name, field_id=field_id)
            self.categories.append(category)
        elif field_id is not None and category.field_id is None:
            category.field_id = field_id
        return category

    # -- options ------------------------------------------------------

    @staticmethod
    def find_option(category: VotingCategory, option_name: str) -> Optional[VotingOption]:
        for option in category.options:
            if option.option_name == option_name:
                return option
        return None

    @staticmethod
    def find_option_ci(category: VotingCategory, option_name: str) -> Optional[VotingOption]:
        """Case-insensitive lookup, used for duplicate detection of labels."""
        wanted = option_name.strip().lower()
        for option in category.options:
            if option.option_name.strip().lower() == wanted:
                return option
        return None

    def ensure_option(self, category: VotingCategory, option_name: str) -> VotingOption:
        option = self.find_option(category, option_name)
        if option is None:
            option = VotingOption(option_name=option_name)
            category.options.append(option)
        return option

    def remove_option(self, category: VotingCategory, option_name: str) -> bool:
        before = len(category.options)
        category.options = [o for o in category.options if o.option_name != option_name]
        return len(category.options) != before

    # -- votes --------------------------------------------------------

    @staticmethod
    def _add_vote(option: VotingOption, user_id: int) -> None:
        if user_id not in option.votes:
            option.votes.append(user_id)

    @staticmethod
    def _remove_vote(option: VotingOption, user_id: int) -> None:
        if user_id in option.votes:
            option.votes = [v for v in option.votes if v != user_id]

    def set_user_single_selection(
        self, category: VotingCategory, user_id: int, option_name: Optional[str]
    ) -> None:
        """Make ``option_name`` the user's only vote in ``category``.

        ``None`` clears the user's vote altogether.
        """
        for option in category.options:
            self._remove_vote(option, user_id)
        if option_name is not None:
            self._add_vote(self.ensure_option(category, option_name), user_id)

    def set_user_multi_selection(
        self, category: VotingCategory, user_id: int, option_names: Iterable[str]
    ) -> None:
        wanted = list(dict.fromkeys(option_names))
        for option in category.options:
            if option.option_name not in wanted:
                self._remove_vote(option, user_id)
        for name in wanted:
            self._add_vote(self.ensure_option(category, name), user_id)

    def user_selections(self, user_id: int) -> dict[str, list[str]]:
        """Category name -> option names the user currently votes for."""
        result: dict[str, list[str]] = {}
        for category in self.categories:
            names = [o.option_name for o in category.options if user_id in o.votes]
            if names:
                result[category.category_name] = names
        return result

    # -- invariants ---------------------------------------------------

    def check_invariants(self, single_select: Iterable[VotingCategory] = ()) -> None:
        """Verify option names are unique and single-select categories hold one vote per user."""
        for category in self.categories:
            names = [o.option_name for o in category.options]
            if len(names) != len(set(names)):
                raise StoreInvariantError(f'Category "{category.category_name}" has duplicate options')
            for option in category.options:
                if len(option.votes) != len(set(option.votes)):
                    raise StoreInvariantError(
                        f'Option "{option.option_name}" in "{category.category_name}" counts a vote twice'
                    )
        for category in single_select:
            seen: set[int] = set()
            for option in category.options:
                for user_id in option.votes:
                    if user_id in seen:
                        raise StoreInvariantError(
                            f'User {user_id} votes more than once in "{category.category_name}"'
                        )
                    seen.add(user_id)
