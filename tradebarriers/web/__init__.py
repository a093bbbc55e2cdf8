# Server-rendered pages: public dashboard, agreement detail, admin forms
