from dataclasses import dataclass

from app.models.post_model import Post


@dataclass
class PostPage:
    items: list
    page: int
    per_page: int
    total: int

    @property
    def pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


class PostRepository:
    def __init__(self, session):
        self.session = session

    def create(self, image, title, content):
        post = Post(image=image, title=title, content=content)
        self.session.add(post)
        self.session.commit()
        return post

    def get_by_id(self, post_id):
        return self.session.get(Post, post_id)

    def update(self, post, **fields):
        for name, value in fields.items():
            setattr(post, name, value)
        self.session.commit()
        return post

    def delete(self, post):
        self.session.delete(post)
        self.session.commit()

    def paginate_latest(self, page: int, per_page: int) -> PostPage:
        query = (
            self.session.query(Post)
            .order_by(Post.created_at.desc(), Post.id.desc())
        )

        total = query.count()
        posts = query.offset((page - 1) * per_page).limit(per_page).all()
        return PostPage(items=posts, page=page, per_page=per_page, total=total)
